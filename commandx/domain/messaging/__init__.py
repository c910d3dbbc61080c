"""SMS messaging and two-way conversations"""
