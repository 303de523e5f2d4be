"""HTTP runner for MCP server (remote deployment)."""
import os

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.server import TransportSecuritySettings
from captioned_video_mcp.server import (
    app_lifespan,
    transcribe_video,
    create_render_job,
    get_render_job,
    list_render_jobs,
    get_preview_url,
    caption_and_render,
    help_resource,
    READ_ANNOTATIONS,
    WRITE_ANNOTATIONS,
)

server = FastMCP(
    "Captioned Video",
    instructions="Transcribe stored videos into captions and render captioned videos",
    lifespan=app_lifespan,
    host="0.0.0.0",
    port=int(os.environ.get("CAPTION_MCP_PORT", "8402")),
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)

# Register tools with annotations
server.tool(annotations=WRITE_ANNOTATIONS)(transcribe_video)
server.tool(annotations=WRITE_ANNOTATIONS)(create_render_job)
server.tool(annotations=READ_ANNOTATIONS)(get_render_job)
server.tool(annotations=READ_ANNOTATIONS)(list_render_jobs)
server.tool(annotations=READ_ANNOTATIONS)(get_preview_url)

# Register prompts
server.prompt()(caption_and_render)

# Register resources
server.resource("captions://help")(help_resource)

server.run(transport="streamable-http")
