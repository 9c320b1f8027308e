from dataweave.cli import main

main()
