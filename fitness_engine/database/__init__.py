# 数据访问模块
