"""Remote management interfaces: object classification, typed proxies and metadata"""
