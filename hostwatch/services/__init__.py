"""
主机可用性对账引擎的各个组件 (Reconciliation Engine Components)

RPC 客户端、网络探测、监控项匹配、时效判断、可用性评分、指标提取、问题解析。
"""
