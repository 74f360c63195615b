"""
Static well-known port -> service label table. No network interaction.
"""

from typing import Dict

UNKNOWN_SERVICE = "unknown"

WELL_KNOWN_SERVICES: Dict[int, str] = {
    20: "ftp-data",
    21: "ftp",
    22: "ssh",
    23: "telnet",
    25: "smtp",
    53: "domain",
    67: "dhcps",
    68: "dhcpc",
    69: "tftp",
    80: "http",
    88: "kerberos",
    110: "pop3",
    111: "rpcbind",
    119: "nntp",
    123: "ntp",
    135: "msrpc",
    137: "netbios-ns",
    139: "netbios-ssn",
    143: "imap",
    161: "snmp",
    179: "bgp",
    389: "ldap",
    443: "https",
    445: "microsoft-ds",
    465: "smtps",
    514: "shell",
    515: "printer",
    587: "submission",
    631: "ipp",
    636: "ldaps",
    873: "rsync",
    993: "imaps",
    995: "pop3s",
    1080: "socks",
    1433: "ms-sql-s",
    1521: "oracle",
    1723: "pptp",
    1883: "mqtt",
    2049: "nfs",
    2375: "docker",
    3306: "mysql",
    3389: "ms-wbt-server",
    5060: "sip",
    5432: "postgresql",
    5672: "amqp",
    5900: "vnc",
    6379: "redis",
    8000: "http-alt",
    8080: "http-proxy",
    8443: "https-alt",
    9200: "elasticsearch",
    11211: "memcache",
    27017: "mongodb",
}


def identify(port: int) -> str:
    return WELL_KNOWN_SERVICES.get(port, UNKNOWN_SERVICE)
