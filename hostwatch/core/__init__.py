"""
核心模块包 (Core Module Package)

hostwatch 的基础设施组件：配置管理、异常体系、日志初始化。

Infrastructure components for hostwatch: configuration, error taxonomy and logging bootstrap.
"""
