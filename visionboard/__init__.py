"""
Vision board service.

A FastAPI application where signed-in users build 3x4 image grids, attach
goals to them and export them as PNGs, plus a demo mode for anonymous
visitors backed by a per-visitor key-value store.
"""
