# Overview: JSON envelope shared by every API route: {"success": ..., "data" | "error": ...}.

from __future__ import annotations

from flask import jsonify


def ok(data=None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def fail(error: str, status: int = 400, **extra):
    body = {"success": False, "error": error}
    body.update(extra)
    return jsonify(body), status
