"""Personnel records and CSV import"""
