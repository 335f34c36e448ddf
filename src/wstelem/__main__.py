from wstelem.cli.main import main

main()
