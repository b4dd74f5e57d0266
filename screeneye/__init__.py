"""
ScreenEye Attention Monitor

Real-time monitoring of whether an operator is facing the screen, with
escalating alerts, enforced operator rotation and session statistics.
"""

__version__ = "1.0.0"
__author__ = "ScreenEye Team"
__description__ = "Real-time screen attention monitoring with alert escalation and operator rotation"
