from typing import Any, Self

from dbus_next.signature import Variant
from pydantic import BaseModel, Field

# Properties of a single object, keyed by interface then property name
InterfaceProperties = dict[str, dict[str, Any]]


class DBusVariantValue(BaseModel):
    """Wrapper for D-Bus variant values.
    """
    model_config = {'frozen': True, 'arbitrary_types_allowed': True}

    value: Any = Field(..., description='The wrapped D-Bus variant value')

    @classmethod
    def from_dbus_variant(cls, variant: Variant | Any | None) -> Self:
        """Create instance from D-Bus variant.

        Args:
            variant: The D-Bus variant to extract value from

        Returns:
            DBusVariantValue instance with extracted value
        """
        if isinstance(variant, Variant):
            return cls(value=variant.value)
        return cls(value=variant)


def unwrap_properties(properties: dict[str, Any]) -> dict[str, Any]:
    """Convert a property dict of variants into plain Python values.
    """
    return {
        name: DBusVariantValue.from_dbus_variant(variant).value
        for name, variant in properties.items()
    }


def unwrap_interfaces(
    interfaces: dict[str, dict[str, Any]],
) -> InterfaceProperties:
    """Unwrap the a{sa{sv}} payload used by the ObjectManager interface.
    """
    return {
        interface: unwrap_properties(properties)
        for interface, properties in interfaces.items()
    }
