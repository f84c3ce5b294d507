"""
餐饮报价支付服务
"""

__version__ = "1.0.0"
