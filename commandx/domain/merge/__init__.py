"""Entity merge and duplicate detection for customers, vendors and personnel"""
