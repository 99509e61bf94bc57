"""
Devices module.

Scope:
- Device and device-type models
- Own-device counts and the registered device-type list used by the devices page
- Enrollment and removal (audited)
"""
