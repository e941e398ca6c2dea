# -*- coding: utf-8 -*-
"""
CBAM Engine REST API - GL-CBAM-ENGINE

FastAPI router exposing the CBAM engines under ``/api/v1/cbam``.
"""

from cbam_engine.api.router import router

__all__ = ["router"]
