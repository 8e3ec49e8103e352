from taskforge.cli import app

app(prog_name="taskforge")
