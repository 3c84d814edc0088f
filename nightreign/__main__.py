from .adapters.inbound.cli.commands import main

main()
