from lancenter.cli import main

main()
