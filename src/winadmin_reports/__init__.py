"""winadmin_reports - Reporting helpers for Windows, Active Directory and Entra ID.

Dieses Paket exportiert den MFA-Status von Benutzern (Microsoft Graph oder
MSOnline-Export) als CSV, zählt Verzeichnisbenutzer und prüft Registry-Status
(Reboot pending, Windows Build) inklusive Nagios-Ausgabe.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
