from mirrorsync.cli import main

main()
