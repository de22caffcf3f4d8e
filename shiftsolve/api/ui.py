from fastapi import APIRouter
from fastapi.responses import HTMLResponse, StreamingResponse
from shiftsolve.telemetry import event_stream

router = APIRouter()

HTML = """
<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <title>ShiftSolve Monitor</title>
    <style>
      body { font: 14px/1.4 -apple-system, BlinkMacSystemFont, Segoe UI, Roboto, sans-serif; margin: 20px; }
      .log { background: #f5f5f7; padding: 8px; border-radius: 6px; margin: 4px 0; }
      .error { background: #ffecec; color: #8a1f1f; }
      .done { background: #e6ffed; color: #067d36; }
      table { border-collapse: collapse; margin-top: 8px; }
      th, td { border: 1px solid #ddd; padding: 6px 8px; }
      th { background: #f5f5f7; text-align: left; }
      .pill { display:inline-block; padding:2px 6px; border-radius: 10px; font-size: 12px; color: #fff; }
    </style>
  </head>
  <body>
    <h1>ShiftSolve Monitor</h1>
    <div>
      <label>Employee ids: <input id="employeeIds" placeholder="comma separated" /></label>
      <label>Shift ids: <input id="shiftIds" placeholder="comma separated" /></label>
      <button id="generate">Generate Schedule</button>
      <button id="clear">Clear Calendar</button>
    </div>
    <div id="status" class="log">Idle.</div>
    <div id="events"></div>
    <h3>Calendar</h3>
    <div id="calendar"></div>
    <script>
      const $ = (id) => document.getElementById(id);
      const ids = (v) => v.split(',').map(s => s.trim()).filter(Boolean);
      let source = null;

      async function renderCalendar() {
        const items = await (await fetch('/calendar')).json();
        if (!items.length) { $('calendar').innerHTML = '<div class="log">No shifts scheduled.</div>'; return; }
        items.sort((a, b) => (a.date + a.start_time).localeCompare(b.date + b.start_time));
        const rows = items.map(i => `<tr><td>${i.date}</td><td>${i.start_time}-${i.end_time}</td>` +
          `<td><span class="pill" style="background:${i.color}">${i.title}</span></td>` +
          `<td>${i.employees.join(', ')}</td></tr>`).join('');
        $('calendar').innerHTML = `<table><tr><th>Date</th><th>Time</th><th>Shift</th><th>Employees</th></tr>${rows}</table>`;
      }

      function listen(sessionId) {
        if (source) source.close();
        $('events').innerHTML = '';
        source = new EventSource(`/ui/events/${sessionId}`);
        source.addEventListener('update', (e) => {
          const ev = JSON.parse(e.data);
          const div = document.createElement('div');
          div.className = 'log' + (['failed', 'timeout', 'infeasible'].includes(ev.kind) ? ' error' : '') +
            (ev.kind === 'finished' ? ' done' : '');
          div.textContent = ev.message || JSON.stringify(ev);
          $('events').prepend(div);
          if (['finished', 'progress'].includes(ev.kind)) renderCalendar();
        });
      }

      $('generate').onclick = async () => {
        const r = await fetch('/schedule/generate', {
          method: 'POST', headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({employee_ids: ids($('employeeIds').value), shift_ids: ids($('shiftIds').value)})
        });
        const data = await r.json();
        if (!r.ok) { $('status').textContent = data.detail || 'Request failed'; return; }
        $('status').textContent = `Session ${data.session_id} started.`;
        listen(data.session_id);
      };
      $('clear').onclick = async () => { await fetch('/calendar', {method: 'DELETE'}); renderCalendar(); };
      renderCalendar();
    </script>
  </body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
def index():
    return HTMLResponse(content=HTML)


@router.get("/events/{session_id}")
async def events(session_id: str):
    return StreamingResponse(event_stream(session_id), media_type="text/event-stream")
