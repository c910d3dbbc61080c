"""Customers, vendors and projects"""
