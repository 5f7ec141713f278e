#!/usr/bin/env python3
"""Force graph CLI - drive the graph backend from the command line."""

import argparse
import json
import os
import sys
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

API_BASE = os.environ.get("FORCEGRAPH_API", "http://127.0.0.1:8765/api")


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _api_request(method, endpoint, data=None, raw=False):
    """Make a request to the force graph backend."""
    url = f"{API_BASE}{endpoint}"
    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            text = response.read().decode()
            return text if raw else json.loads(text)
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _json_out({
                "status": "error",
                "kind": error_data.get("kind"),
                "error": f"API error: {error_data.get('detail', 'Unknown error')}"
            }, code=1)
        except json.JSONDecodeError:
            _json_out({"status": "error", "error": f"API error ({e.code}): {error_body}"}, code=1)
    except urllib.error.URLError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e.reason}. Is the backend running?"}, code=1)


def _read_file(path):
    try:
        return Path(path).read_text()
    except OSError as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e}"}, code=1)


def _quote(node_id):
    return urllib.parse.quote(node_id, safe="")


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    from .main import main as serve
    serve()


# ── Graph ────────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/graph"))


def cmd_new(args):
    _json_out(_api_request("POST", "/graph/new"))


def cmd_load(args):
    _json_out(_api_request("POST", "/graph/load", data={"text": _read_file(args.file)}))


def cmd_open(args):
    _json_out(_api_request("POST", "/graph/open", data={"file_path": args.file_path}))


def cmd_export(args):
    text = _api_request("GET", "/graph/export", raw=True)
    if args.output:
        Path(args.output).write_text(text)
        _json_out({"success": True, "file_path": args.output})
    print(text)


def cmd_save(args):
    _json_out(_api_request("POST", "/graph/save", data={"file_path": args.file_path}))


def cmd_validate(args):
    _json_out(_api_request("GET", "/graph/validate"))


# ── Nodes ────────────────────────────────────────────────────────────────────

def cmd_add_node(args):
    _json_out(_api_request("POST", "/nodes", data={"id": args.id, "group": args.group}))


def cmd_delete_node(args):
    _json_out(_api_request("DELETE", f"/nodes/{_quote(args.id)}"))


def cmd_set_node_color(args):
    _json_out(_api_request("PATCH", f"/nodes/{_quote(args.id)}", data={"color": args.color}))


def cmd_set_node_text_size(args):
    _json_out(_api_request("PATCH", f"/nodes/{_quote(args.id)}", data={"textSize": args.size}))


def cmd_drag_end(args):
    _json_out(_api_request("POST", f"/nodes/{_quote(args.id)}/drag-end", data={
        "x": args.x, "y": args.y, "z": args.z
    }))


# ── Links ────────────────────────────────────────────────────────────────────

def _link_path(args):
    return f"/links/{_quote(args.source)}/{_quote(args.target)}"


def cmd_add_link(args):
    _json_out(_api_request("POST", "/links", data={
        "source": args.source,
        "target": args.target,
        "value": args.value
    }))


def cmd_set_link_color(args):
    _json_out(_api_request("PATCH", _link_path(args), data={"color": args.color}))


def cmd_set_link_thickness(args):
    _json_out(_api_request("PATCH", _link_path(args), data={"thickness": args.thickness}))


# ── Pinning ──────────────────────────────────────────────────────────────────

def cmd_load_positions(args):
    _json_out(_api_request("POST", "/positions/load", data={"text": _read_file(args.file)}))


def cmd_toggle_pinning(args):
    _json_out(_api_request("POST", "/pinning/toggle"))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(prog="forcegraph", description="Force graph CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")

    # Graph
    sub.add_parser("get-current")
    sub.add_parser("new")

    p = sub.add_parser("load")
    p.add_argument("--file", required=True)

    p = sub.add_parser("open")
    p.add_argument("--file-path", required=True)

    p = sub.add_parser("export")
    p.add_argument("--output", default=None)

    p = sub.add_parser("save")
    p.add_argument("--file-path", default=None)

    sub.add_parser("validate")

    # Nodes
    p = sub.add_parser("add-node")
    p.add_argument("--id", required=True)
    p.add_argument("--group", type=int, default=1)

    p = sub.add_parser("delete-node")
    p.add_argument("--id", required=True)

    p = sub.add_parser("set-node-color")
    p.add_argument("--id", required=True)
    p.add_argument("--color", required=True)

    p = sub.add_parser("set-node-text-size")
    p.add_argument("--id", required=True)
    p.add_argument("--size", type=float, required=True)

    p = sub.add_parser("drag-end")
    p.add_argument("--id", required=True)
    p.add_argument("--x", type=float, required=True)
    p.add_argument("--y", type=float, required=True)
    p.add_argument("--z", type=float, required=True)

    # Links
    p = sub.add_parser("add-link")
    p.add_argument("--source", required=True)
    p.add_argument("--target", required=True)
    p.add_argument("--value", type=float, default=1)

    p = sub.add_parser("set-link-color")
    p.add_argument("--source", required=True)
    p.add_argument("--target", required=True)
    p.add_argument("--color", required=True)

    p = sub.add_parser("set-link-thickness")
    p.add_argument("--source", required=True)
    p.add_argument("--target", required=True)
    p.add_argument("--thickness", type=float, required=True)

    # Pinning
    p = sub.add_parser("load-positions")
    p.add_argument("--file", required=True)

    sub.add_parser("toggle-pinning")

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "get-current": cmd_get_current,
    "new": cmd_new,
    "load": cmd_load,
    "open": cmd_open,
    "export": cmd_export,
    "save": cmd_save,
    "validate": cmd_validate,
    "add-node": cmd_add_node,
    "delete-node": cmd_delete_node,
    "set-node-color": cmd_set_node_color,
    "set-node-text-size": cmd_set_node_text_size,
    "drag-end": cmd_drag_end,
    "add-link": cmd_add_link,
    "set-link-color": cmd_set_link_color,
    "set-link-thickness": cmd_set_link_thickness,
    "load-positions": cmd_load_positions,
    "toggle-pinning": cmd_toggle_pinning,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
