"""hostwatch - Zabbix 主机可用性对账与指标提取服务。"""

__version__ = "0.3.0"
