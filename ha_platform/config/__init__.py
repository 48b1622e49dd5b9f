"""
설정 패키지
"""
from .config import config, Config, DevelopmentConfig, ProductionConfig, TestingConfig

__all__ = ['config', 'Config', 'DevelopmentConfig', 'ProductionConfig', 'TestingConfig']
