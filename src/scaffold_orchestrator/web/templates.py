"""HTML/CSS/JS for the web dashboard - single page, no build step."""

DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Scaffold Orchestrator</title>
<style>
:root {
	--bg: #0d1117;
	--bg-card: #161b22;
	--border: #30363d;
	--text: #c9d1d9;
	--text-dim: #8b949e;
	--text-bright: #f0f6fc;
	--accent: #58a6ff;
	--green: #3fb950;
	--red: #f85149;
	--yellow: #d29922;
	--mono: "SF Mono", "Cascadia Code", "Fira Code", Consolas, monospace;
}
* { margin: 0; padding: 0; box-sizing: border-box; }
body {
	background: var(--bg);
	color: var(--text);
	font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Helvetica, Arial, sans-serif;
	line-height: 1.5;
}
.header {
	padding: 16px 24px;
	border-bottom: 1px solid var(--border);
	background: var(--bg-card);
}
.header h1 { font-size: 18px; color: var(--text-bright); font-weight: 600; }
.container { padding: 24px; max-width: 1400px; margin: 0 auto; display: grid; grid-template-columns: 420px 1fr; gap: 24px; }
.card { background: var(--bg-card); border: 1px solid var(--border); border-radius: 6px; padding: 16px; }
table { width: 100%; border-collapse: collapse; font-size: 13px; }
th, td { text-align: left; padding: 6px 8px; border-bottom: 1px solid var(--border); }
tr.session { cursor: pointer; }
tr.session:hover { background: #1c2128; }
.status { font-family: var(--mono); }
.status.completed { color: var(--green); }
.status.failed { color: var(--red); }
.status.awaiting_approval { color: var(--yellow); }
pre { font-family: var(--mono); font-size: 12px; white-space: pre-wrap; color: var(--text); }
.msg { margin-bottom: 12px; }
.msg .role { color: var(--accent); font-size: 12px; text-transform: uppercase; }
.empty { color: var(--text-dim); }
</style>
</head>
<body>
<div class="header"><h1>Scaffold Orchestrator</h1></div>
<div class="container">
	<div class="card">
		<table>
			<thead><tr><th>Session</th><th>Project</th><th>Status</th></tr></thead>
			<tbody id="sessions"><tr><td colspan="3" class="empty">Loading...</td></tr></tbody>
		</table>
	</div>
	<div class="card" id="detail"><p class="empty">Select a session.</p></div>
</div>
<script>
function esc(s) {
	const d = document.createElement("div");
	d.textContent = s == null ? "" : String(s);
	return d.innerHTML;
}

async function loadSessions() {
	const resp = await fetch("/api/sessions");
	const sessions = await resp.json();
	const body = document.getElementById("sessions");
	if (!sessions.length) {
		body.innerHTML = '<tr><td colspan="3" class="empty">No sessions yet</td></tr>';
		return;
	}
	body.innerHTML = sessions.map(s =>
		`<tr class="session" onclick="loadDetail('${esc(s.id)}')">` +
		`<td>${esc(s.id)}</td><td>${esc(s.project_name || "-")}</td>` +
		`<td class="status ${esc(s.status)}">${esc(s.status)}</td></tr>`
	).join("");
}

async function loadDetail(id) {
	const resp = await fetch(`/api/sessions/${id}`);
	const s = await resp.json();
	const messages = (s.messages || []).map(m =>
		`<div class="msg"><div class="role">${esc(m.role)}</div><pre>${esc(m.content)}</pre></div>`
	).join("");
	const delivery = s.delivery ? `<h3>Delivery</h3><pre>${esc(s.delivery.summary_card)}</pre>` : "";
	document.getElementById("detail").innerHTML =
		`<h2>${esc(s.project_name || s.id)} <span class="status ${esc(s.status)}">${esc(s.status)}</span></h2>` +
		delivery + `<h3>Conversation</h3>` + (messages || '<p class="empty">No messages</p>');
}

loadSessions();
setInterval(loadSessions, 5000);
</script>
</body>
</html>
"""
