"""Static introspection data for the ModemManager objects we talk to.

Proxies are built from these documents instead of calling Introspect on the
service, so a proxy can be created while ModemManager is not on the bus and
creating one never triggers D-Bus activation of the service.
"""

OBJECT_MANAGER_XML = '''
<node>
  <interface name="org.freedesktop.DBus.ObjectManager">
    <method name="GetManagedObjects">
      <arg name="objects" type="a{oa{sa{sv}}}" direction="out"/>
    </method>
    <signal name="InterfacesAdded">
      <arg name="object_path" type="o"/>
      <arg name="interfaces_and_properties" type="a{sa{sv}}"/>
    </signal>
    <signal name="InterfacesRemoved">
      <arg name="object_path" type="o"/>
      <arg name="interfaces" type="as"/>
    </signal>
  </interface>
</node>
'''

MODEM_XML = '''
<node>
  <interface name="org.freedesktop.DBus.Properties">
    <method name="Get">
      <arg name="interface_name" type="s" direction="in"/>
      <arg name="property_name" type="s" direction="in"/>
      <arg name="value" type="v" direction="out"/>
    </method>
    <method name="GetAll">
      <arg name="interface_name" type="s" direction="in"/>
      <arg name="properties" type="a{sv}" direction="out"/>
    </method>
    <signal name="PropertiesChanged">
      <arg name="interface_name" type="s"/>
      <arg name="changed_properties" type="a{sv}"/>
      <arg name="invalidated_properties" type="as"/>
    </signal>
  </interface>
  <interface name="org.freedesktop.ModemManager1.Modem">
    <method name="Enable">
      <arg name="enable" type="b" direction="in"/>
    </method>
    <method name="SetPowerState">
      <arg name="state" type="u" direction="in"/>
    </method>
    <property name="PrimaryPort" type="s" access="read"/>
    <property name="State" type="i" access="read"/>
    <property name="Model" type="s" access="read"/>
  </interface>
  <interface name="org.freedesktop.ModemManager1.Modem.Modem3gpp">
    <property name="RegistrationState" type="u" access="read"/>
    <property name="OperatorName" type="s" access="read"/>
  </interface>
</node>
'''
