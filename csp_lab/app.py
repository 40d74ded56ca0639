"""CspLab — Deliberately CSP-unfriendly web site for cspgen testing.

Every page exercises one thing the generator has to cope with: same- and
cross-origin scripts, inline code of every kind, eval(), data: images,
same-origin frames and pages that ship their own CSP. The home page links
to all of them so --num-links can discover them.
"""

import os

from flask import Flask, Response, abort, jsonify, make_response, render_template_string

app = Flask(__name__, static_folder=None)

CDN = os.environ.get("CSPLAB_CDN", "https://cdn.jsdelivr.net")

# ── Shared HTML layout ──────────────────────────────────────────

_LAYOUT = """<!DOCTYPE html>
<html><head><title>CspLab — {{ title }}</title>
{{ head|safe }}
<style>
body{font-family:monospace;background:#111;color:#0f0;max-width:900px;margin:0 auto;padding:2rem}
a{color:#0ff}h1{color:#f00}h2{color:#ff0}
button{background:#900;color:#fff;border:none;padding:0.5rem 1rem;cursor:pointer}
</style></head>
<body>
<h1>CspLab</h1>
<p><a href="/">← Home</a></p>
<h2>{{ title }}</h2>
{{ content|safe }}
</body></html>
"""


def page(title, content, head=""):
    return render_template_string(_LAYOUT, title=title, content=content, head=head)


# ── Static scripts ──────────────────────────────────────────────

SCRIPTS = {
    "local.js": """
window.addEventListener("load", () => {
  document.getElementById("status").textContent = "local script ran";
});
""",
    "fetch.js": """
fetch('https://api.github.com/repos/torvalds/linux/tags')
  .then(response => response.json())
  .then(tags => console.log(`Latest tagged Linux kernel: ${tags[0].name}`))
  .catch(error => console.error('There was an error fetching the data:', error));
""",
    "same-fetch.js": """
fetch('/api/tags')
  .then(response => response.json())
  .then(tags => { document.getElementById("tags").textContent = tags.join(", "); });
""",
    "eval.js": """
const expr = "1 + 1";
document.getElementById("result").textContent = eval(expr);
""",
    "interactive.js": """
window.addEventListener("load", () => {
  document.getElementById("catbutton").addEventListener("click", () => {
    const img = document.createElement("img");
    img.src = "https://picsum.photos/200";
    document.getElementById("cat").appendChild(img);
  });
});
""",
}


@app.route("/static/<name>")
def static_script(name):
    if name not in SCRIPTS:
        abort(404)
    return Response(SCRIPTS[name], mimetype="application/javascript")


@app.route("/api/tags")
def api_tags():
    return jsonify(["v6.9", "v6.8", "v6.7"])


# ══════════════════════════════════════════════════════════════════
#  HOME — index with links for crawler discovery
# ══════════════════════════════════════════════════════════════════

PAGES = [
    ("/same-cross", "Same-origin and cross-origin scripts"),
    ("/inline", "Inline script, style and handlers"),
    ("/interactive", "Interaction-gated handlers"),
    ("/eval", "eval()"),
    ("/images", "data: and cross-origin images"),
    ("/frame", "Same-origin iframe"),
    ("/existing-csp", "Page with its own CSP"),
]


@app.route("/")
def home():
    items = "\n".join(f'<li><a href="{path}">{label}</a></li>' for path, label in PAGES)
    return page("Home", f"""
    <p>Deliberately CSP-unfriendly application for cspgen testing.</p>
    <ul>
    {items}
        <li><a href="/static/local.js">A script, not a page</a></li>
        <li><a href="/api/tags">JSON, not a page</a></li>
        <li><a href="https://example.com/">Another site</a></li>
    </ul>
    """)


@app.route("/same-cross")
def same_cross():
    return page("Same-origin and cross-origin scripts", f"""
    <p id="status">waiting</p>
    <p id="tags"></p>
    <script src="/static/local.js"></script>
    <script src="/static/same-fetch.js"></script>
    <script src="/static/fetch.js"></script>
    <script src="{CDN}/npm/lodash@4.17.21/lodash.min.js"></script>
    """)


@app.route("/inline")
def inline():
    return page("Inline script, style and handlers", """
    <p id="out" style="color: red;">inline</p>
    <img src="/missing.png" onerror="this.alt='broken';">
    <script>document.getElementById("out").textContent = "inline script ran";</script>
    """)


@app.route("/interactive")
def interactive():
    return page("Interaction-gated handlers", """
    <form id="testForm" action="javascript:void(0)">
        <input type="text" name="q" value="">
        <button type="submit">Submit</button>
    </form>
    <button onclick="alert('Hello world');">Say hello</button>
    <a href="javascript:alert('navigated')">Run code</a>
    <button id="catbutton">Show cat</button>
    <div id="cat"></div>
    <script src="/static/interactive.js"></script>
    """)


@app.route("/eval")
def eval_page():
    return page("eval()", """
    <p id="result"></p>
    <script src="/static/eval.js"></script>
    """)


@app.route("/images")
def images():
    return page("data: and cross-origin images", """
    <img alt="pixel" src="data:image/gif;base64,R0lGODlhAQABAIAAAAAAAP///ywAAAAAAQABAAACAUwAOw==">
    <img alt="remote" src="https://picsum.photos/100">
    """)


@app.route("/frame")
def frame():
    return page("Same-origin iframe", """
    <iframe src="/framed" width="400" height="100"></iframe>
    """)


@app.route("/framed")
def framed():
    return "<!DOCTYPE html><html><body><p>I am framed.</p></body></html>"


@app.route("/existing-csp")
def existing_csp():
    head = '<meta http-equiv="Content-Security-Policy" content="script-src \'none\'">'
    resp = make_response(page("Page with its own CSP", """
    <p id="status">waiting</p>
    <script src="/static/local.js"></script>
    """, head=head))
    resp.headers["Content-Security-Policy"] = "default-src 'none'"
    return resp


# ══════════════════════════════════════════════════════════════════
#  Main
# ══════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    print("\n  CspLab starting on http://127.0.0.1:5000\n")
    app.run(host="127.0.0.1", port=5000, debug=True)
