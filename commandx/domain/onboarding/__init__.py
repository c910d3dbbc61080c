"""Token-link onboarding for personnel and vendors"""
