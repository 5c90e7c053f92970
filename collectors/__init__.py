"""Collector functions turning labeled object groups into metric families"""
