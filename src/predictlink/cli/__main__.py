from predictlink.cli.app import run

run()
