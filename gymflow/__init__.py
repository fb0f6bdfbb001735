"""Gym class planning and booking service"""
