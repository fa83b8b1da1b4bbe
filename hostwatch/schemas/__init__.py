"""对外数据结构（pydantic 模型）。"""
