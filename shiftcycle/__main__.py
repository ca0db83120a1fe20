from shiftcycle.cli import main

main()
