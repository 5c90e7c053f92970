"""Inventory tracking, reconciliation and metric collection"""
