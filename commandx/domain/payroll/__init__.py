"""Weekly payroll generation"""
