from quota_gateway.main import run

run()
