"""Metric family models, histogram estimation and exposition"""
