"""OxKube: mirrors Kubernetes resource changes into the Onix CMDB."""

__version__ = "0.3.0"
