"""Estimates, invoices and purchase orders"""
