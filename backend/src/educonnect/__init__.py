"""
EduConnect 后端：讲座分享与播放列表服务
"""
__version__ = "0.1.0"
