"""版本信息"""

__version__ = "0.1.0"
__author__ = "yafo-ai"
__description__ = "多因素认证令牌生命周期引擎"
