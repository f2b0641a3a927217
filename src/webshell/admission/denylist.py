"""Base commands that are never admitted, grouped by the capability they grant."""

from __future__ import annotations

PRIVILEGE_ESCALATION = frozenset({"sudo", "su", "doas", "pkexec"})
PACKAGE_MANAGEMENT = frozenset({
    "apt", "apt-get", "aptitude", "dpkg", "yum", "dnf", "rpm", "apk",
    "pacman", "zypper", "snap", "emerge",
})
SERVICE_CONTROL = frozenset({"systemctl", "service", "initctl", "rc-service", "rc-update"})
DISK_PARTITIONING = frozenset({
    "fdisk", "sfdisk", "cfdisk", "gdisk", "parted", "mkfs", "mkfs.ext2",
    "mkfs.ext3", "mkfs.ext4", "mkfs.xfs", "mkfs.vfat", "mkfs.btrfs", "mkswap",
    "wipefs",
})
REMOTE_ACCESS = frozenset({"ssh", "scp", "sftp", "telnet", "rsh", "rlogin", "ftp", "rsync"})
RAW_NETWORKING = frozenset({"nc", "netcat", "ncat", "nmap", "socat", "tcpdump", "masscan", "hping3"})
CHROOT = frozenset({"chroot"})
MOUNTING = frozenset({"mount", "umount"})
USER_MANAGEMENT = frozenset({
    "useradd", "userdel", "usermod", "adduser", "deluser", "addgroup", "delgroup",
    "groupadd", "groupdel", "groupmod", "passwd", "chpasswd", "visudo",
})
POWER_CONTROL = frozenset({"shutdown", "reboot", "halt", "poweroff", "init", "telinit"})
FIREWALL = frozenset({"iptables", "ip6tables", "nft", "ufw", "firewall-cmd"})
KERNEL_MODULES = frozenset({"insmod", "rmmod", "modprobe", "depmod"})
SCHEDULING = frozenset({"crontab", "at", "atq", "atrm", "batch"})

DENIED_COMMANDS: frozenset[str] = (
    PRIVILEGE_ESCALATION
    | PACKAGE_MANAGEMENT
    | SERVICE_CONTROL
    | DISK_PARTITIONING
    | REMOTE_ACCESS
    | RAW_NETWORKING
    | CHROOT
    | MOUNTING
    | USER_MANAGEMENT
    | POWER_CONTROL
    | FIREWALL
    | KERNEL_MODULES
    | SCHEDULING
)
