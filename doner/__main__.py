from doner.cli import main

main()
