"""Hospitality Access package.

Guest check-in/check-out tracking for stadium hospitality rooms. Organized by
feature modules (access, guests, search, stats, audit) with a thin Flask
controller layer on top of service/repository layers.
"""
