"""Static HTML page served to browsers that GET the MCP endpoint."""

PUBLIC_ENDPOINT = "https://vfb3-mcp.virtualflybrain.org"

_CLIENT_CONFIG = f"""{{
"mcpServers": {{
  "vfb3-mcp": {{
    "url": "{PUBLIC_ENDPOINT}"
  }}
}}
}}"""


def render_docs_page(version: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>VFB3-MCP Server</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 40px; max-width: 800px; line-height: 1.6; }}
    h1 {{ color: #333; }}
    h2 {{ color: #555; margin-top: 30px; }}
    h3 {{ color: #666; margin-top: 20px; }}
    code {{ background: #f4f4f4; padding: 2px 6px; border-radius: 3px; }}
    pre {{ background: #f4f4f4; padding: 15px; border-radius: 5px; overflow-x: auto; }}
    a {{ color: #0066cc; text-decoration: none; }}
    .endpoint {{ background: #e8f4fd; padding: 10px; border-left: 4px solid #0066cc; margin: 20px 0; }}
  </style>
</head>
<body>
  <h1>Virtual Fly Brain MCP Server v{version}</h1>
  <p>This is a Model Context Protocol (MCP) server providing access to Virtual Fly Brain (VFB) data and APIs.</p>

  <div class="endpoint">
    <strong>MCP Endpoint:</strong> <code>{PUBLIC_ENDPOINT}</code>
  </div>

  <h2>Available Tools</h2>
  <ul>
    <li><code>get_term_info</code> - Get term information from VirtualFlyBrain using a VFB ID</li>
    <li><code>run_query</code> - Run a query on VirtualFlyBrain using a VFB ID and query type</li>
    <li><code>search_terms</code> - Search for VFB terms using the Solr search server with filtering options</li>
  </ul>

  <h2>Quick Start for MCP Clients</h2>
  <p>Add the server to your MCP client configuration:</p>
  <pre><code>{_CLIENT_CONFIG}</code></pre>

  <h2>About VirtualFlyBrain</h2>
  <p>VirtualFlyBrain (VFB) is a knowledge base about <em>Drosophila melanogaster</em> neurobiology, integrating neuroanatomical 3D images and models, gene expression data, neural connectivity, and standardized terminology.</p>

  <h2>Documentation</h2>
  <ul>
    <li><a href="https://github.com/Robbie1977/VFB3-MCP#readme">Full Documentation on GitHub</a></li>
    <li><a href="https://virtualflybrain.org">Virtual Fly Brain Website</a></li>
  </ul>
</body>
</html>"""
