# 体测评价与排名引擎
__version__ = "1.0.0"
