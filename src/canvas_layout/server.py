"""canvas-layout server: MCP tools for laying out linked canvases."""

from __future__ import annotations

import json
import logging
import os
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import config_from_env
from .errors import LayoutError
from .models import LayoutResult
from .parser import parse_topology
from .workspace import Workspace


# --- Constants ---
LOG_LEVEL = os.environ.get("CANVAS_LAYOUT_LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)

server = Server("canvas-layout")
workspace = Workspace(config_from_env())


# --- Tool definitions ---

_CANVAS_ID = {"type": "integer", "description": "Positive canvas id"}
_LINK_ID = {"type": "integer", "description": "Unique link id"}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="create_canvas",
            description=(
                "Register a new canvas. It starts its own cluster, placed next to "
                "the cluster of the originating canvas when one is given. "
                "Returns the canvases whose positions changed."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "canvas_id": _CANVAS_ID,
                    "originating_canvas_id": {
                        "type": "integer",
                        "description": "Optional canvas the new one was created from.",
                    },
                },
                "required": ["canvas_id"],
            },
        ),
        Tool(
            name="delete_canvas",
            description=(
                "Delete a canvas and every arrow touching it. Its children become "
                "cluster roots."
            ),
            inputSchema={
                "type": "object",
                "properties": {"canvas_id": _CANVAS_ID},
                "required": ["canvas_id"],
            },
        ),
        Tool(
            name="link_canvases",
            description=(
                "Draw an arrow from one canvas to another. The destination joins the "
                "source's cluster; an existing incoming arrow on the destination is replaced."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "link_id": _LINK_ID,
                    "source_canvas_id": _CANVAS_ID,
                    "dest_canvas_id": _CANVAS_ID,
                },
                "required": ["link_id", "source_canvas_id", "dest_canvas_id"],
            },
        ),
        Tool(
            name="unlink_canvases",
            description="Erase an arrow. The destination's subtree becomes its own cluster.",
            inputSchema={
                "type": "object",
                "properties": {"link_id": _LINK_ID},
                "required": ["link_id"],
            },
        ),
        Tool(
            name="get_layout",
            description="Recompute the layout and return every canvas position and cluster topology.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="get_topology",
            description=(
                "Return the topology broadcast payload: center, bounding box and ring "
                "radii of every cluster from the last layout pass."
            ),
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="serialize_graph",
            description="Return the workspace (canvases, links and the cluster grid string) for persistence.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="load_graph",
            description="Restore a workspace previously returned by serialize_graph.",
            inputSchema={
                "type": "object",
                "properties": {
                    "canvases": {"type": "array", "items": {"type": "integer"}},
                    "links": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "link_id": {"type": "integer"},
                                "source_canvas_id": {"type": "integer"},
                                "dest_canvas_id": {"type": "integer"},
                            },
                            "required": ["link_id", "source_canvas_id", "dest_canvas_id"],
                        },
                    },
                    "graph": {"type": "string", "description": "Serialized cluster grid"},
                },
                "required": ["canvases", "links", "graph"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    handler = _HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    try:
        return handler(arguments or {})
    except (LayoutError, KeyError, ValueError) as e:
        logger.warning(f"Tool {name} failed: {e}")
        return [TextContent(type="text", text=f"{name} failed: {e}")]


def _result(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


def _changes(result: LayoutResult) -> list[TextContent]:
    return _result({
        "status": "success",
        "clusters": len(result.topology),
        "moved": {
            str(canvas_id): [point.x, point.y]
            for canvas_id, point in result.moved.items()
        },
    })


def _create_canvas(args: dict) -> list[TextContent]:
    return _changes(workspace.create_canvas(args["canvas_id"], args.get("originating_canvas_id")))


def _delete_canvas(args: dict) -> list[TextContent]:
    return _changes(workspace.delete_canvas(args["canvas_id"]))


def _link_canvases(args: dict) -> list[TextContent]:
    return _changes(workspace.create_link(
        args["link_id"], args["source_canvas_id"], args["dest_canvas_id"],
    ))


def _unlink_canvases(args: dict) -> list[TextContent]:
    return _changes(workspace.delete_link(args["link_id"]))


def _get_layout(args: dict) -> list[TextContent]:
    summary = workspace.layout().to_summary()
    summary["status"] = "success"
    return _result(summary)


def _get_topology(args: dict) -> list[TextContent]:
    payload = workspace.coordinator.serialize_topology()
    return _result({
        "status": "success",
        "topology": payload,
        "clusters": [cluster.model_dump() for cluster in parse_topology(payload)],
    })


def _serialize_graph(args: dict) -> list[TextContent]:
    snapshot = workspace.snapshot()
    snapshot["status"] = "success"
    return _result(snapshot)


def _load_graph(args: dict) -> list[TextContent]:
    result = workspace.load(args["canvases"], args["links"], args["graph"])
    return _result({
        "status": "success",
        "canvases": len(result.positions),
        "clusters": len(result.topology),
    })


_HANDLERS = {
    "create_canvas": _create_canvas,
    "delete_canvas": _delete_canvas,
    "link_canvases": _link_canvases,
    "unlink_canvases": _unlink_canvases,
    "get_layout": _get_layout,
    "get_topology": _get_topology,
    "serialize_graph": _serialize_graph,
    "load_graph": _load_graph,
}


def main():
    """Entry point for the MCP server."""
    import asyncio

    # stdout carries the MCP protocol, so logs go to stderr
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
