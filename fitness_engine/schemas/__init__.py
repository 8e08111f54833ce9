# 接口请求/响应模型
