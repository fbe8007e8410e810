from tcpconsole.console import main

main()
