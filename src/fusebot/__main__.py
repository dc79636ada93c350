from fusebot.cli import main

main()
