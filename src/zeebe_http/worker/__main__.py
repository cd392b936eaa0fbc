from zeebe_http.worker.main import run

run()
